"""Chat client core: Firebase authentication, Firestore transcript, Gemini replies."""

__version__ = "0.1.0"
