"""Shelf Watcher: mirror an OpenAudible library into AudioBookshelf.

Watches the ``books.json`` manifest written by OpenAudible and copies
the referenced audio files into a templated AudioBookshelf directory
layout, copying only files that are missing or whose size changed.
"""

__version__ = "1.4.2"
__app_name__ = "Shelf Watcher"
