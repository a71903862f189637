"""FrostLine — risk scoring for temperature-controlled vehicles and trips."""

__version__ = "0.1.0"
