"""Prediction synthesis.

- PredictionSynthesizer: runs the factor analyzers and combines them
- Prediction: frozen result with probability, confidence and explanation
- Recommendation: GO / MARGINAL / SKIP
"""

from dawnpatrol.models.synthesizer import Prediction, PredictionSynthesizer, Recommendation

__all__ = ["Prediction", "PredictionSynthesizer", "Recommendation"]
