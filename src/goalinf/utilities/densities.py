"""Implements the likelihood model used for goal inference."""
import numpy as np
from scipy.stats import multivariate_normal

from goalinf.errors import ConfigurationError, InputValidationError


def kinematic_std(max_acc, dt):
    """Calculates the velocity standard deviation from kinematic limits.

    Notes
    -----
    Two standard deviations are taken to be the largest change in velocity
    an agent can achieve in one control period,

    .. math::
        \\sigma = \\frac{a_{max}}{2} \\Delta t

    Parameters
    ----------
    max_acc : float
        Maximum acceleration of the agents.
    dt : float
        Control period in seconds.

    Returns
    -------
    float
        Standard deviation of the velocity noise.

    Raises
    ------
    ConfigurationError
        If either input is non-positive or not finite.
    """
    for name, val in (("max_acc", max_acc), ("dt", dt)):
        if not np.isfinite(val) or val <= 0:
            msg = "{:s} must be positive and finite, got {}".format(name, val)
            raise ConfigurationError(msg)
    return max_acc / 2 * dt


def check_velocity(vel, name="velocity"):
    """Converts a single 2D velocity to a float array and checks it.

    Parameters
    ----------
    vel : array like
        Velocity with 2 components (x, y).
    name : string, optional
        Name used in the error message. The default is 'velocity'.

    Returns
    -------
    numpy array
        Velocity of shape (2, ).

    Raises
    ------
    InputValidationError
        If the velocity does not have 2 components or any component is not
        finite.
    """
    try:
        out = np.asarray(vel, dtype=float).ravel()
    except (TypeError, ValueError) as e:
        raise InputValidationError("{:s} is not numeric: {}".format(name, e)) from e
    if out.size != 2:
        msg = "{:s} must have 2 components, got {:d}".format(name, out.size)
        raise InputValidationError(msg)
    if not np.all(np.isfinite(out)):
        raise InputValidationError("{:s} has non-finite components".format(name))
    return out


def check_velocities(vels, count=None, name="velocities", finite=True):
    """Converts a sequence of 2D velocities to an N x 2 array and checks it.

    Parameters
    ----------
    vels : array like
        Sequence of velocities, anything that reshapes to N x 2.
    count : int, optional
        Expected number of velocities. The default is None which implies any
        number is accepted.
    name : string, optional
        Name used in the error message. The default is 'velocities'.
    finite : bool, optional
        Flag for rejecting non-finite components. The default is True.

    Returns
    -------
    N x 2 numpy array
        Velocities one per row.

    Raises
    ------
    InputValidationError
        If the velocities can not be shaped to N x 2, do not match the
        expected count, or have non-finite components.
    """
    try:
        out = np.asarray(vels, dtype=float)
    except (TypeError, ValueError) as e:
        raise InputValidationError("{:s} are not numeric: {}".format(name, e)) from e
    if out.size % 2 != 0:
        msg = "{:s} must be pairs of (x, y), got {:d} values"
        raise InputValidationError(msg.format(name, out.size))
    out = out.reshape((-1, 2))
    if count is not None and out.shape[0] != count:
        msg = "expected {:d} {:s}, got {:d}"
        raise InputValidationError(msg.format(count, name, out.shape[0]))
    if finite and not np.all(np.isfinite(out)):
        raise InputValidationError("{:s} have non-finite components".format(name))
    return out


def bivariate_gaussian_pdf(x, means, std_x, std_y=None, corr=0.0):
    r"""Evaluates a bivariate Gaussian density at a point for several means.

    Notes
    -----
    Every density shares the covariance

    .. math::
        \Sigma = \begin{bmatrix} \sigma_x^2 & \rho \sigma_x \sigma_y \\
            \rho \sigma_x \sigma_y & \sigma_y^2 \end{bmatrix}

    so the density of :math:`x` about each mean :math:`\mu_g` is evaluated as
    a zero mean density at :math:`x - \mu_g`. Densities far from the mean
    underflow to exactly 0, this is left to the caller to handle.

    Parameters
    ----------
    x : numpy array
        Point to evaluate, shape (2, ).
    means : N x 2 numpy array
        Mean of each density.
    std_x : float
        Standard deviation of the x component.
    std_y : float, optional
        Standard deviation of the y component. The default is None which
        implies the same value as `std_x`.
    corr : float, optional
        Correlation coefficient between the components, must be in (-1, 1).
        The default is 0.

    Returns
    -------
    numpy array
        Density value for each mean, shape (N, ).
    """
    if std_y is None:
        std_y = std_x
    if std_x <= 0 or std_y <= 0:
        raise ConfigurationError("Standard deviations must be positive")
    if not -1 < corr < 1:
        raise ConfigurationError("Correlation must be in (-1, 1), got {}".format(corr))

    cross = corr * std_x * std_y
    cov = np.array([[std_x ** 2, cross], [cross, std_y ** 2]])
    diff = np.asarray(x, dtype=float).reshape((1, 2)) - np.asarray(
        means, dtype=float
    ).reshape((-1, 2))

    return np.atleast_1d(multivariate_normal(mean=np.zeros(2), cov=cov).pdf(diff))
