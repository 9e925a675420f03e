"""Per-language driver programs for coding exams.

A submission defines a ``solve`` entry point; the harness appends a small
driver that calls it with one test case input and prints the result. Each
language is a registered :class:`Harness`, so supporting a new language is a
``register_harness`` call rather than an edit to a shared function.
"""

import json
from dataclasses import dataclass
from typing import Callable, Dict, Optional

DEFAULT_LANGUAGE = "javascript"


@dataclass(frozen=True)
class Harness:
    language: str
    version: str
    filename: str
    template: Callable[[str, str], str]

    def render(self, code: str, case_input: str) -> str:
        return self.template(code, case_input)


_REGISTRY: Dict[str, Harness] = {}


def register_harness(harness: Harness) -> Harness:
    _REGISTRY[harness.language] = harness
    return harness


def get_harness(language: Optional[str]) -> Optional[Harness]:
    return _REGISTRY.get((language or "").lower())


def harness_for(language: Optional[str]) -> Harness:
    """Harness for ``language``, falling back to javascript for unknown ones."""
    return get_harness(language) or _REGISTRY[DEFAULT_LANGUAGE]


def supported_languages() -> list[str]:
    return sorted(_REGISTRY)


def _literal(value: str) -> str:
    # A JSON string literal is also a valid string literal in every
    # registered language.
    return json.dumps(value)


register_harness(
    Harness(
        "javascript",
        "18.15.0",
        "main.js",
        lambda code, arg: f"{code}\nconsole.log(String(solve({_literal(arg)})))",
    )
)
register_harness(
    Harness(
        "python",
        "3.10.0",
        "main.py",
        lambda code, arg: f"{code}\nprint(str(solve({_literal(arg)})))",
    )
)
register_harness(
    Harness(
        "c",
        "10.2.0",
        "main.c",
        lambda code, arg: (
            f"#include <stdio.h>\n{code}\n"
            f'int main(){{ printf("%s", solve({_literal(arg)})); return 0; }}'
        ),
    )
)
register_harness(
    Harness(
        "cpp",
        "10.2.0",
        "main.cpp",
        lambda code, arg: (
            f"#include <bits/stdc++.h>\nusing namespace std;\n{code}\n"
            f"int main(){{ cout<<solve({_literal(arg)}); return 0; }}"
        ),
    )
)
register_harness(
    Harness(
        "java",
        "15.0.2",
        "Main.java",
        lambda code, arg: (
            f"{code}\nclass Runner{{ public static void main(String[] args){{ "
            f"System.out.print(Main.solve({_literal(arg)})); }} }}"
        ),
    )
)
