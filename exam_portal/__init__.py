"""Application package for the Exam Portal (authoring, proctored exam taking and grading)."""
