import numpy as np
from cashkarp import rkck
from cashkarp.drivers import trajectory


def circle(dydt, y, t):
    dydt[0] = -y[1]
    dydt[1] = y[0]


period = 2.0 * np.pi
integ = rkck(np.array([1.0, 0.0]), circle, 0.0, 1e-3, tol=1e-10)
traj = trajectory(integ, period)

radius = np.hypot(traj.y[:, 0], traj.y[:, 1])

print(f"Accepted steps: {integ.nok}, rejected: {integ.nbad}, evaluations: {integ.nfev}")
print(f"Final state: {integ.y}")
print(f"Radius drift: {np.max(np.abs(radius - 1.0)):.2e}")
print(f"Step range: {np.min(np.diff(traj.t)):.3e} to {np.max(np.diff(traj.t)):.3e}")
