"""
This module provides the classes and functions for validating bags.
"""
from .base import (ALL, ERROR, WARN, Finding, ValidationReport, Validator,
                   BagValidationError)
from .bag import BagValidator, validate
