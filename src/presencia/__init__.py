"""Presencia attendance package.

Organised by feature modules (attendance, corrections, reports, users, ...)
with a thin Flask controller layer over service/repository layers.
"""
