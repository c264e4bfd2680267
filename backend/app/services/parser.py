import json
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import pandas as pd
from fastapi import UploadFile, HTTPException

from app.core.config import get_settings
from app.core.errors import ErrorCodes, get_error_response
from app.core.schemas import Record
from app.core.sanitization import sanitize_filename, sanitize_for_logging, validate_column_name, clean_column_name
from app.core.performance import track_performance

logger = logging.getLogger(__name__)

# Allowed file extensions
ALLOWED_EXTENSIONS = {'.csv', '.json'}

# MIME type mapping for validation
MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/csv': '.csv',
    'application/json': '.json',
    'text/json': '.json',
}

DANGEROUS_MIME_TYPES = {
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
}


def _bad_request(code: str, detail: Optional[str] = None, status_code: int = 400) -> HTTPException:
    return HTTPException(status_code=status_code, detail=get_error_response(code, detail))


def validate_file_extension(filename: str) -> str:
    """
    Validate and return the lower-cased file extension.

    Raises:
        HTTPException: If the extension is missing or unsupported
    """
    if not filename:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, "Filename is required.")

    file_ext = Path(filename).suffix.lower()

    if not file_ext:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, "File must have an extension.")

    if file_ext not in ALLOWED_EXTENSIONS:
        raise _bad_request(
            ErrorCodes.INVALID_FILE_TYPE,
            f"Unsupported file format: {file_ext}."
        )

    return file_ext


def validate_mime_type(content_type: Optional[str], file_ext: str) -> None:
    """
    Reject obviously dangerous MIME types; a mismatch with the extension is only logged.
    """
    if not content_type:
        return

    content_type = content_type.split(';')[0].strip().lower()
    expected_ext = MIME_TYPE_MAP.get(content_type)
    if expected_ext and expected_ext != file_ext:
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")

    if content_type in DANGEROUS_MIME_TYPES:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, f"File type '{content_type}' is not allowed.")


def to_python(value: Any) -> Any:
    """Plain Python value for a decoded cell (NaN/NaT become None)."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    return value


def clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Drop fully empty rows and columns and tidy the headers."""
    df = df.dropna(how='all', axis=0)
    df = df.dropna(how='all', axis=1)
    df.columns = [clean_column_name(col) for col in df.columns]
    return df


def records_from_dataframe(df: pd.DataFrame) -> List[Record]:
    """Convert a frame to records with plain Python cell values."""
    columns = [str(c) for c in df.columns]
    return [
        {col: to_python(value) for col, value in zip(columns, row)}
        for row in df.itertuples(index=False, name=None)
    ]


def decode_csv(contents: bytes) -> pd.DataFrame:
    """Decode CSV bytes; the first row holds the column headers."""
    try:
        return pd.read_csv(BytesIO(contents))
    except UnicodeDecodeError:
        logger.info("CSV is not valid UTF-8, retrying as latin1")
        return pd.read_csv(BytesIO(contents), encoding='latin1')


def decode_json(contents: bytes) -> List[Record]:
    """
    Decode JSON bytes that must hold an array of objects.

    Records keep their own key sets; nothing is filled in for sparse rows.

    Raises:
        ValueError: If the document is not an array of objects
    """
    data = json.loads(contents.decode('utf-8-sig'))
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ValueError("JSON must be an array of objects")
    return [{clean_column_name(k): v for k, v in item.items()} for item in data if item]


def validate_file_content(df: pd.DataFrame) -> None:
    """
    Check decoded content against the configured limits.

    Raises:
        HTTPException: If content validation fails
    """
    settings = get_settings()

    if len(df) > settings.max_file_rows:
        raise _bad_request(
            ErrorCodes.PROCESSING_ERROR,
            f"File contains too many rows ({len(df):,}). Maximum allowed: {settings.max_file_rows:,} rows."
        )

    if len(df.columns) > settings.max_file_columns:
        raise _bad_request(
            ErrorCodes.PROCESSING_ERROR,
            f"File contains too many columns ({len(df.columns)}). Maximum allowed: {settings.max_file_columns}."
        )

    for col in df.columns:
        if not validate_column_name(str(col)):
            raise _bad_request(ErrorCodes.PARSE_ERROR, f"Invalid column name: '{sanitize_for_logging(str(col))}'.")

    for col in df.columns:
        if df[col].dtype == 'object':
            max_length = df[col].dropna().astype(str).str.len().max()
            if pd.notna(max_length) and max_length > settings.max_cell_size_bytes:
                raise _bad_request(
                    ErrorCodes.PROCESSING_ERROR,
                    f"Column '{sanitize_for_logging(str(col))}' has values over {settings.max_cell_size_bytes} bytes."
                )


def parse_contents(contents: bytes, file_ext: str) -> List[Record]:
    """
    Decode raw file bytes into records.

    Raises:
        HTTPException: On empty input, undecodable content or limit violations
    """
    if len(contents) == 0:
        raise _bad_request(ErrorCodes.FILE_EMPTY)

    try:
        if file_ext == '.json':
            records = decode_json(contents)
            df = pd.DataFrame.from_records(records)
        else:
            records = None
            df = decode_csv(contents)
    except pd.errors.EmptyDataError:
        raise _bad_request(ErrorCodes.FILE_EMPTY)
    except (ValueError, pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.warning(f"Error decoding {file_ext} file: {sanitize_for_logging(str(e))}")
        raise _bad_request(ErrorCodes.PARSE_ERROR)

    validate_file_content(df)
    if records is not None:
        if not records:
            raise _bad_request(ErrorCodes.FILE_EMPTY)
        return records

    df = clean_dataframe(df)
    if df.empty:
        raise _bad_request(ErrorCodes.FILE_EMPTY, "No rows remain after removing empty rows and columns.")

    return records_from_dataframe(df)


@track_performance("parse_file")
async def parse_file(file: UploadFile) -> List[Record]:
    """
    Parse an uploaded CSV or JSON file into records.

    Validates the extension, MIME type and size before decoding.
    """
    settings = get_settings()
    file_ext = validate_file_extension(file.filename)
    validate_mime_type(file.content_type, file_ext)

    contents = await file.read()
    if len(contents) > settings.max_file_size_bytes:
        raise _bad_request(
            ErrorCodes.FILE_TOO_LARGE,
            f"Maximum size is {settings.max_file_size_mb}MB.",
            status_code=413,
        )

    records = parse_contents(contents, file_ext)
    logger.info(
        f"Parsed file: {sanitize_for_logging(sanitize_filename(file.filename))}, "
        f"{len(records)} records"
    )
    return records
