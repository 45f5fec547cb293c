#!/usr/bin/env python

"""
    Core module for Circulation: loan store, catalog, patron directory,
    fine calculator and the loan orchestrator

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""
