"""
Field types for application form processing
"""


class FieldType:
    """Constants for the kinds of controls found in application forms"""

    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    NUMBER = "number"
    EMAIL = "email"
    PHONE = "phone"
    FILE = "file"

    # Types whose answer must be one of a fixed set of options
    CHOICE_TYPES = {SELECT, RADIO, CHECKBOX}
