class ValidationError(ValueError):
    """Bad input shape or range. Always recoverable by asking again."""

    code = "validation_error"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"code": self.code, "message": self.message}


class InvalidInputError(ValidationError):
    code = "invalid_input"


class OutOfRangeError(ValidationError):
    code = "out_of_range"

    def __init__(self, category_id, value, bound):
        self.category_id = category_id
        self.value = value
        self.bound = bound
        super().__init__(
            f"Score {value:g} for category {category_id} must be between 0 and {bound:g}."
        )


class UnknownCategoryError(ValidationError):
    code = "unknown_category"

    def __init__(self, category_id):
        self.category_id = category_id
        super().__init__(f"Category {category_id} is not configured for this subject.")


class NonImprovingGoalError(ValidationError):
    code = "non_improving_goal"

    def __init__(self, current_score, target_score):
        self.current_score = current_score
        self.target_score = target_score
        super().__init__(
            f"Target score {target_score:g} must be higher than current score {current_score:g}."
        )


class NonPositiveTimeframeError(ValidationError):
    code = "non_positive_timeframe"

    def __init__(self, weeks):
        self.weeks = weeks
        super().__init__(f"Time frame must be at least one week (got {weeks}).")
