"""
Answer chosen for one form field
"""


class Answer:
    """Represents an answer to a form question"""

    def __init__(
        self,
        answer: str,
        reference: str = "",
        confident: bool = True,
        field_type: str = "",
    ):
        self.answer = answer
        self.reference = reference
        self.confident = confident
        self.field_type = field_type

    def __bool__(self):
        return bool(self.answer and str(self.answer).strip())

    def to_dict(self):
        """Convert answer to dictionary format"""
        return {
            "answer": self.answer,
            "reference": self.reference,
            "confident": self.confident,
            "field_type": self.field_type,
        }
