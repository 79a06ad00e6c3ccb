"""Application package for the learning-management backend.

This package exposes the service, repository, policy and model modules
used by the FastAPI application. The assignment and grading logic lives
in `services` and `utils.questions`; everything else is thin CRUD around
courses, lectures and users.
"""
