"""Data-quality exceptions raised while cleaning and bucketing loan records"""


class LoanDataError(Exception):
    """Base exception for loan data problems"""

    pass


class MissingColumnsError(LoanDataError):
    """Input dataset lacks one or more required columns"""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class MalformedTermValueError(LoanDataError):
    """Term string does not look like '<N> months'"""

    def __init__(self, value, loan_ids=None):
        self.value = value
        self.loan_ids = list(loan_ids) if loan_ids is not None else []
        message = f"Malformed term value: {value!r}"
        if self.loan_ids:
            message += f" (loan ids: {', '.join(str(i) for i in self.loan_ids[:10])})"
        super().__init__(message)


class MalformedDateValueError(LoanDataError):
    """Issue date or credit-line date is not in Mon-YY / Mon-YYYY shape"""

    pass


class UnparseableOrdinalError(LoanDataError):
    """Employment length does not follow the '<N> years' convention"""

    pass


class UnknownAggregationError(LoanDataError):
    """Requested aggregation is not registered"""

    pass
