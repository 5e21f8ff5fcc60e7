# -*- coding: utf-8 -*-
"""
AlertFlow CLI
=============

Headless job dispatch for the AlertFlow converter.
"""

from alertflow.cli.main import app, main

__all__ = ["app", "main"]
