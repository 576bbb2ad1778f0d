"""
Matplotlib helpers to visualize EKF localization runs.

Example:
    import matplotlib.pyplot as plt
    from pose_ekf.visualization.plotting import plot_trajectory

    ax = plot_trajectory(ekf, landmarks=world_landmarks, groundtruth=true_poses)
    plt.show()
"""

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Ellipse

from pose_ekf.utils.ellipse import confidence_scale, covariance_ellipse


def ellipse_patch(mean_xy, cov, probability=0.95, **kwargs) -> Ellipse:
    """
    Build a confidence ellipse patch for a 2D Gaussian.

    Args:
        mean_xy: Ellipse center (x, y)
        cov: 2x2 position covariance
        probability: Enclosed probability mass (default: 0.95, i.e. 2.4477 sigma)
        **kwargs: Forwarded to matplotlib.patches.Ellipse

    Returns:
        Ellipse patch, not yet added to any axes
    """
    major, minor, theta = covariance_ellipse(cov)
    scale = confidence_scale(probability)
    kwargs.setdefault("fill", False)
    kwargs.setdefault("color", "r")
    return Ellipse(
        xy=(mean_xy[0], mean_xy[1]),
        width=2 * scale * major,
        height=2 * scale * minor,
        angle=np.degrees(theta),
        **kwargs,
    )


def plot_trajectory(
    ekf,
    landmarks=(),
    groundtruth=None,
    ax=None,
    ellipse_every: int = 10,
    probability: float = 0.95,
):
    """
    Plot the estimated trajectory with its position uncertainty.

    Args:
        ekf: LocalizationFilter with a recorded history
        landmarks: Landmarks to draw, colored by their color tag
        groundtruth: Optional array (T, >=2) of true [x, y, ...] poses
        ax: Axes to draw on (default: current axes)
        ellipse_every: Draw a confidence ellipse every N history rows (0 disables)
        probability: Confidence level of the ellipses

    Returns:
        The matplotlib Axes
    """
    if ax is None:
        ax = plt.gca()

    states = ekf.states
    covariances = ekf.covariances

    if groundtruth is not None:
        groundtruth = np.asarray(groundtruth)
        ax.plot(groundtruth[:, 0], groundtruth[:, 1], "b", label="Robot State Ground truth")

    if len(states) > 0:
        ax.plot(states[:, 1], states[:, 2], "r", label="Robot State Estimate")
        ax.plot(states[0, 1], states[0, 2], "go", label="Start point")
        ax.plot(states[-1, 1], states[-1, 2], "yo", label="End point")

    if ellipse_every > 0:
        for state, cov in zip(states[::ellipse_every], covariances[::ellipse_every]):
            ax.add_patch(ellipse_patch(state[1:3], cov[:2, :2], probability, alpha=0.5))

    if len(landmarks) > 0:
        ax.scatter(
            [l.x for l in landmarks],
            [l.y for l in landmarks],
            s=200,
            c=[l.color for l in landmarks],
            alpha=0.5,
            marker="*",
            label="Landmark Locations",
        )

    ax.set_title("EKF Localization with Known Correspondences")
    ax.set_aspect("equal", adjustable="datalim")
    ax.legend(loc="center left", bbox_to_anchor=(1, 0.5))
    return ax
