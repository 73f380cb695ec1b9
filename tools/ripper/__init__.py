"""
Ripper – download the linked contents of entire subreddits.

Supports:
  • Walking the Pushshift search API backward through time
  • Subreddits and user profiles
  • Direct, API-mediated and ffmpeg-merged media downloads
  • Self posts as text files
  • Resumable operation via a per-target resume marker
"""
