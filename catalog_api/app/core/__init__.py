"""Cross‑cutting infrastructure shared by all domains."""
