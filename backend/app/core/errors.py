"""
Error codes and user-facing error bodies.

Collaborators (upload parsing, dataset storage) report failures through
`error_detail`; the engine functions never raise for bad data.
"""
from typing import Dict, Optional


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    DATASET_NOT_FOUND = "DATASET_NOT_FOUND"
    STORAGE_ERROR = "STORAGE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "File is too large",
        "detail": "The uploaded file exceeds the configured size limit.",
        "suggestion": "Upload a smaller extract, or only the columns you want to explore."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "File is empty",
        "detail": "No rows were found in the uploaded file.",
        "suggestion": "Check that the file was saved with its data and upload it again."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "Unsupported file type",
        "detail": "Only CSV (.csv) and JSON (.json) files can be explored.",
        "suggestion": "Export your data as CSV, or as a JSON array of objects."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "Could not read the file",
        "detail": "The file contents could not be decoded into rows.",
        "suggestion": "CSV files need a header row; JSON files must contain an array of objects."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "Could not process the data",
        "detail": "The dataset was read but could not be analysed.",
        "suggestion": "Remove empty rows or columns and try again."
    },
    ErrorCodes.DATASET_NOT_FOUND: {
        "message": "No dataset loaded",
        "detail": "There is no saved dataset to work with.",
        "suggestion": "Upload a file first, or send the records with the request."
    },
    ErrorCodes.STORAGE_ERROR: {
        "message": "Could not save the dataset",
        "detail": "The dataset store rejected the write.",
        "suggestion": "The data is still usable for this request; try saving a smaller dataset."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Too many requests",
        "detail": "Uploads are rate limited per client.",
        "suggestion": "Wait a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "Request timed out",
        "detail": "The request took longer than the configured timeout.",
        "suggestion": "Try a smaller dataset or a narrower filter."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "An unexpected error occurred.",
        "suggestion": "Try again; if it keeps happening, try a different file."
    }
}


def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get user-friendly error response for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message, detail and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response


def error_detail(error_code: str, correlation_id: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """Error body for an HTTPException, tagged with the request's correlation id."""
    detail = get_error_response(error_code, additional_detail)
    detail["correlation_id"] = correlation_id
    return detail
