"""Service layer: storage, Gemini access and the processing pipeline."""
