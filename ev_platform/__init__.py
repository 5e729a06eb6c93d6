# ev_platform/__init__.py
"""EV Platform: репликация городов и сопоставление идентификаторов райдеров."""
