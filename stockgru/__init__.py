"""
Multi-Stock GRU Direction Forecaster

Turns a CSV of multi-stock daily prices into fixed-width sequences and trains a
small GRU network to predict next-3-day up/down moves per stock.
"""

__version__ = "0.1.0"
__author__ = "Mabunda Hlulani"
__email__ = "213067605@tut4life.ac.za"
