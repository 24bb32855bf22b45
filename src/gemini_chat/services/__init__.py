"""Adapters for the external collaborators (Firebase, Firestore, Gemini, Google)."""
