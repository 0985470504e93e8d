"""
StoryShorts - plain-text stories to narrated vertical videos.

Pipeline: article -> manifest -> narration -> scene images -> video,
with optional publishing to the Dzen editor.
"""
__version__ = "0.1.0"
