#!/usr/bin/env python

"""
    Circulation, the borrowing lifecycle core of a library lending system

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = '0.1.0'
