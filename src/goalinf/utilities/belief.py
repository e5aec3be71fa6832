"""Helper functions for working with beliefs over goal hypotheses."""
import numpy as np
from scipy.stats import entropy

from goalinf.errors import ConfigurationError


def uniform_belief(num_goals):
    """Uniform belief over a number of goal hypotheses.

    Parameters
    ----------
    num_goals : int
        Number of goal hypotheses, must be at least 1.

    Returns
    -------
    numpy array
        Belief with every entry equal to 1 / `num_goals`.
    """
    if num_goals < 1:
        msg = "At least 1 goal hypothesis is required, got {}".format(num_goals)
        raise ConfigurationError(msg)
    return np.full(int(num_goals), 1.0 / num_goals)


def belief_entropy(belief):
    """Shannon entropy of a belief in nats.

    A uniform belief over N goals has entropy ln(N), a belief fully committed
    to one goal has entropy 0.
    """
    return float(entropy(np.asarray(belief, dtype=float)))


def most_likely_goal(belief):
    """Index and probability of the most likely goal.

    Ties are broken towards the lowest index.

    Parameters
    ----------
    belief : array like
        Belief over the goal hypotheses.

    Returns
    -------
    ind : int
        Index of the most likely goal.
    prob : float
        Probability of that goal.
    """
    belief = np.asarray(belief, dtype=float)
    ind = int(np.argmax(belief))
    return ind, float(belief[ind])
