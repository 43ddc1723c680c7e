from config_tree.exceptions import (
    AlreadyBoundError,
    EnvironmentValidationError,
    InvalidNameError,
    NamespaceClosedError,
    NamingError,
    NotFoundError,
    NotListableError,
    ParamDuplicateError,
    ParseFailureError,
    ResolutionTimeoutError,
    ResourceAccessError,
    UnsupportedProtocolError,
    UnsupportedTypeError,
)


def test_environment_validation_error_message_and_attrs():
    err = EnvironmentValidationError({"DELIMITER": "bad"}, key="DELIMITER", value="")
    assert "Validation errors" in str(err)
    assert err.errors == {"DELIMITER": "bad"}
    assert err.key == "DELIMITER"
    assert err.value == ""


def test_custom_exceptions_are_subclasses():
    for exc in (
        NotFoundError,
        AlreadyBoundError,
        NotListableError,
        UnsupportedProtocolError,
        UnsupportedTypeError,
        ParseFailureError,
        ResolutionTimeoutError,
        InvalidNameError,
        ResourceAccessError,
        NamespaceClosedError,
        EnvironmentValidationError,
    ):
        assert issubclass(exc, NamingError)
    assert issubclass(ParamDuplicateError, EnvironmentValidationError)
