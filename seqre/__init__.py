from seqre.core import SeqreCore, build_core


__all__ = [
    'SeqreCore',
    'build_core',
]
