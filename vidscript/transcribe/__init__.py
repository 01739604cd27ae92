"""
vidscript.transcribe - Remote speech recognition.

Pipeline Stage 2: Upload the extracted audio to the recognition service in
chunks, create a recognition task, poll it to completion and turn the
utterance list into plain text.
"""

from __future__ import annotations
