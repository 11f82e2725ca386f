"""
Core engines: deterministic projection, Monte Carlo simulation, and the
financial formulas they share. No presentation or storage code lives here.
"""
