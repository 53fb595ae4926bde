from om2graph.om2graph import load, main, match

__version__ = '0.1.0'
