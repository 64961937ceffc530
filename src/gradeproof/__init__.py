"""gradeproof: video proof capture and client access for grading submissions."""

__version__ = "0.1.0"
