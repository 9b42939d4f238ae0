"""Application package for the lnconnext community directory backend.

This package exposes the service, repository and model modules used by
the FastAPI application (`lnconnext.main:app`). Individual modules
contain the concrete implementations and documentation.
"""
