import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from storage import BlobStore

logger = logging.getLogger(__name__)

FEEDBACK_KEY = "feedbacks.json"
FEEDBACK_TYPES = ("suggestion", "bug")
SHEET_RANGE = "Sheet1!A:D"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Serialises read-modify-write of the feedback blob within this process
_feedback_lock = threading.Lock()


class SheetsSyncError(Exception):
    """Raised when feedback cannot be recorded or synced."""
    pass


def load_feedback(store: BlobStore) -> List[Dict[str, Any]]:
    if not store.exists(FEEDBACK_KEY):
        return []
    try:
        entries = json.loads(store.get(FEEDBACK_KEY).decode("utf-8"))
    except ValueError as e:
        raise SheetsSyncError(f"Feedback store is corrupt: {e}") from e
    if not isinstance(entries, list):
        raise SheetsSyncError("Feedback store is corrupt: expected a list")
    return entries


def submit_feedback(store: BlobStore, feedback_type: str, description: str, email: str = "") -> Dict[str, Any]:
    if feedback_type not in FEEDBACK_TYPES:
        raise SheetsSyncError(f"Feedback type must be one of: {', '.join(FEEDBACK_TYPES)}")
    if not description or not str(description).strip():
        raise SheetsSyncError("Description is required")

    entry = {
        "type": feedback_type,
        "description": str(description).strip(),
        "email": str(email or "").strip(),
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }

    with _feedback_lock:
        entries = load_feedback(store)
        entries.append(entry)
        store.put(FEEDBACK_KEY, json.dumps(entries).encode("utf-8"))

    logger.info("Recorded %s feedback (%d pending)", feedback_type, len(entries))
    return entry


def build_sheets_service(client_email: Optional[str], private_key: Optional[str]):
    """
    Google Sheets v4 client from service-account credentials.
    Private keys from the environment usually carry literal "\\n" escapes.
    """
    if not client_email or not private_key:
        raise SheetsSyncError("GOOGLE_CLIENT_EMAIL / GOOGLE_PRIVATE_KEY are not set in the environment.")

    credentials = service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": client_email,
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        },
        scopes=SCOPES,
    )
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def sync_feedback_to_sheet(store: BlobStore, service, spreadsheet_id: Optional[str]) -> int:
    """
    Append every pending feedback entry as a row, then clear the store.
    Returns the number of rows synced.
    """
    if not spreadsheet_id:
        raise SheetsSyncError("GOOGLE_SHEETS_ID is not set in the environment.")

    with _feedback_lock:
        feedbacks = load_feedback(store)
        if not feedbacks:
            return 0

        rows = [
            [f.get("timestamp", ""), f.get("type", ""), f.get("description", ""), f.get("email", "")]
            for f in feedbacks
        ]

        service.spreadsheets().values().append(
            spreadsheetId=spreadsheet_id,
            range=SHEET_RANGE,
            valueInputOption="USER_ENTERED",
            body={"values": rows},
        ).execute()

        store.delete(FEEDBACK_KEY)

    logger.info("Synced %d feedback rows to spreadsheet", len(rows))
    return len(rows)
