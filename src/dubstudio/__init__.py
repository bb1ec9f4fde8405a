"""
Dubbing Studio - asynchronous video dubbing pipeline.

A job-oriented pipeline for:
- Transcribing speech (OpenAI Whisper, local faster-whisper or an existing SRT)
- Translating timed segments with GPT
- Synthesizing one voice clip per segment (OpenAI or ElevenLabs TTS)
- Assembling a sample-exact master track and encoding it as WAV
- Optional lip-sync and muxing the dubbed track back into the video
"""

__version__ = "0.1.0"
