# -*- coding: utf-8 -*-
"""Package version."""

__version__ = "1.1.0"
