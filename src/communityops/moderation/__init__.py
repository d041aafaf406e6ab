"""Cross-guild actions and the Internal Affairs case lifecycle."""
