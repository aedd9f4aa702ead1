#!/usr/bin/env python3
"""
Wrapper für Deployments ohne pip install: /opt/chat-exporter/bin/export-chat.py
Installiert steht derselbe Einstieg als `export-chat` bereit.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chat_exporter.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
