from .document import CommercialDocument
from .document_line import DocumentLine

__all__ = ["CommercialDocument", "DocumentLine"]
