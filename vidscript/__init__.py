"""
Vidscript - video-to-transcript toolkit.

Pulls the compressed audio track straight out of an MP4 container (no
transcoding), uploads it to a remote speech-recognition service and returns
the recognized text: audio extraction → chunked upload → task creation →
polling → transcript.
"""

__version__ = "0.1.0"
