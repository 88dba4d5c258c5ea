"""Exports config variables that are used throughout the code."""
import os


class FirebaseServiceAccountConfig:
    """Contains the service account used to sign token requests."""

    project_id = os.environ.get("FIREBASE_PROJECT_ID")
    client_email = os.environ.get("FIREBASE_CLIENT_EMAIL")
    private_key = os.environ.get("FIREBASE_PRIVATE_KEY")


class FirestoreRestConfig:
    """Contains the endpoints and tunables of the Firestore REST API."""

    base_url = os.environ.get("FIRESTORE_REST_BASE_URL", "https://firestore.googleapis.com/v1")
    database = os.environ.get("FIRESTORE_DATABASE", "(default)")
    token_uri = os.environ.get("GOOGLE_OAUTH_TOKEN_URI", "https://oauth2.googleapis.com/token")
    scopes = (
        "https://www.googleapis.com/auth/datastore",
        "https://www.googleapis.com/auth/firebase.database",
    )
    list_page_size = int(os.environ.get("FIRESTORE_LIST_PAGE_SIZE", 300))
