"""A python package for online Goal Inference of multiple agents (GOALINF).

Each tracked agent carries a recursive Bayesian filter over a small set of
candidate goals. Observed velocities are compared against simulator predicted
velocities for every goal hypothesis to produce a belief over the goals.

This code is developed by the Laboratory for Autonomy, Guidance, navigation,
control, and Estimation Research (LAGER) at the University of Alabama.
"""
