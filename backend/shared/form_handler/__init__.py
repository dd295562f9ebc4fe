"""
Form handling shared by every platform automation
"""

from shared.form_handler.answer import Answer
from shared.form_handler.field_type import FieldType
from shared.form_handler.form_handler import FormHandler

__all__ = ["Answer", "FieldType", "FormHandler"]
