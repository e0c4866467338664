"""pahydro.jit.kernels
Numba kernels for the device backend.

Every kernel runs one zone per work item (``prange`` over zones) and writes a
zone-local result ``out_loc[c, z, i]``; :func:`gather_kernel` then reduces the
local results per global dof, one dof per work item, so no two work items
ever write the same entry.

Local arrays use the tensor layout of the host path: ``u[iy, ix]`` in 2D and
``u[iz, iy, ix]`` in 3D, quadrature points ``[ky, kx]`` / ``[kz, ky, kx]``.
"""
import numba
import numpy as np


# -------------------------------------------------------------------------
# per-zone sum factorization
# -------------------------------------------------------------------------
@numba.njit(cache=True, fastmath=True)
def _to_quad_2d(u, mx, my):
    n1, n0 = u.shape
    nqx = mx.shape[1]
    nqy = my.shape[1]
    t = np.zeros((n1, nqx))           # contract in x
    for b in range(n1):
        for k in range(nqx):
            s = 0.0
            for i in range(n0):
                s += u[b, i] * mx[i, k]
            t[b, k] = s
    v = np.zeros((nqy, nqx))          # contract in y
    for l in range(nqy):
        for k in range(nqx):
            s = 0.0
            for b in range(n1):
                s += t[b, k] * my[b, l]
            v[l, k] = s
    return v


@numba.njit(cache=True, fastmath=True)
def _from_quad_2d(v, mx, my):
    nqy, nqx = v.shape
    n0 = mx.shape[0]
    n1 = my.shape[0]
    t = np.zeros((nqy, n0))
    for l in range(nqy):
        for i in range(n0):
            s = 0.0
            for k in range(nqx):
                s += v[l, k] * mx[i, k]
            t[l, i] = s
    u = np.zeros((n1, n0))
    for j in range(n1):
        for i in range(n0):
            s = 0.0
            for l in range(nqy):
                s += t[l, i] * my[j, l]
            u[j, i] = s
    return u


@numba.njit(cache=True, fastmath=True)
def _to_quad_3d(u, mx, my, mz):
    n2, n1, n0 = u.shape
    nqx = mx.shape[1]
    nqy = my.shape[1]
    nqz = mz.shape[1]
    t1 = np.zeros((n2, n1, nqx))
    for a in range(n2):
        for b in range(n1):
            for k in range(nqx):
                s = 0.0
                for i in range(n0):
                    s += u[a, b, i] * mx[i, k]
                t1[a, b, k] = s
    t2 = np.zeros((n2, nqy, nqx))
    for a in range(n2):
        for l in range(nqy):
            for k in range(nqx):
                s = 0.0
                for b in range(n1):
                    s += t1[a, b, k] * my[b, l]
                t2[a, l, k] = s
    v = np.zeros((nqz, nqy, nqx))
    for m in range(nqz):
        for l in range(nqy):
            for k in range(nqx):
                s = 0.0
                for a in range(n2):
                    s += t2[a, l, k] * mz[a, m]
                v[m, l, k] = s
    return v


@numba.njit(cache=True, fastmath=True)
def _from_quad_3d(v, mx, my, mz):
    nqz, nqy, nqx = v.shape
    n0 = mx.shape[0]
    n1 = my.shape[0]
    n2 = mz.shape[0]
    t1 = np.zeros((nqz, nqy, n0))
    for m in range(nqz):
        for l in range(nqy):
            for i in range(n0):
                s = 0.0
                for k in range(nqx):
                    s += v[m, l, k] * mx[i, k]
                t1[m, l, i] = s
    t2 = np.zeros((nqz, n1, n0))
    for m in range(nqz):
        for j in range(n1):
            for i in range(n0):
                s = 0.0
                for l in range(nqy):
                    s += t1[m, l, i] * my[j, l]
                t2[m, j, i] = s
    u = np.zeros((n2, n1, n0))
    for h in range(n2):
        for j in range(n1):
            for i in range(n0):
                s = 0.0
                for m in range(nqz):
                    s += t2[m, j, i] * mz[h, m]
                u[h, j, i] = s
    return u


@numba.njit(cache=True)
def _gather_local(vec, dofs, z, offset):
    out = np.empty(dofs.shape[1])
    for i in range(dofs.shape[1]):
        out[i] = vec[offset + dofs[z, i]]
    return out


# -------------------------------------------------------------------------
# force: quadrilaterals
# -------------------------------------------------------------------------
@numba.njit(parallel=True, fastmath=True, cache=True)
def force_quad_kernel(vec_l2, l2_dofs, LQ, HB, HG, S, out_loc):
    nzones = l2_dofs.shape[0]
    nL = LQ.shape[0]
    nH = HB.shape[0]
    nq = LQ.shape[1]
    nqp = nq * nq
    for z in numba.prange(nzones):
        E = _gather_local(vec_l2, l2_dofs, z, 0).reshape(nL, nL)
        QQ = _to_quad_2d(E, LQ, LQ)
        A = np.empty((nq, nq))
        for c in range(2):
            Y = np.zeros((nH, nH))
            for d in range(2):
                for ky in range(nq):
                    for kx in range(nq):
                        A[ky, kx] = QQ[ky, kx] * S[z * nqp + ky * nq + kx, c, d]
                if d == 0:
                    Y += _from_quad_2d(A, HG, HB)
                else:
                    Y += _from_quad_2d(A, HB, HG)
            out_loc[c, z, :] = Y.ravel()


@numba.njit(parallel=True, fastmath=True, cache=True)
def force_transpose_quad_kernel(vec_h1, h1_dofs, ndofs, LQ, HB, HG, S, out_loc):
    nzones = h1_dofs.shape[0]
    nH = HB.shape[0]
    nq = LQ.shape[1]
    nqp = nq * nq
    for z in numba.prange(nzones):
        QQ = np.zeros((nq, nq))
        for c in range(2):
            V = _gather_local(vec_h1, h1_dofs, z, c * ndofs).reshape(nH, nH)
            G0 = _to_quad_2d(V, HG, HB)
            G1 = _to_quad_2d(V, HB, HG)
            for ky in range(nq):
                for kx in range(nq):
                    q = z * nqp + ky * nq + kx
                    QQ[ky, kx] += S[q, c, 0] * G0[ky, kx] + S[q, c, 1] * G1[ky, kx]
        out_loc[0, z, :] = _from_quad_2d(QQ, LQ, LQ).ravel()


# -------------------------------------------------------------------------
# force: hexahedra
# -------------------------------------------------------------------------
@numba.njit(parallel=True, fastmath=True, cache=True)
def force_hex_kernel(vec_l2, l2_dofs, LQ, HB, HG, S, out_loc):
    nzones = l2_dofs.shape[0]
    nL = LQ.shape[0]
    nH = HB.shape[0]
    nq = LQ.shape[1]
    nqp = nq * nq * nq
    for z in numba.prange(nzones):
        E = _gather_local(vec_l2, l2_dofs, z, 0).reshape(nL, nL, nL)
        QQ = _to_quad_3d(E, LQ, LQ, LQ)
        A = np.empty((nq, nq, nq))
        for c in range(3):
            Y = np.zeros((nH, nH, nH))
            for d in range(3):
                for kz in range(nq):
                    for ky in range(nq):
                        for kx in range(nq):
                            q = z * nqp + (kz * nq + ky) * nq + kx
                            A[kz, ky, kx] = QQ[kz, ky, kx] * S[q, c, d]
                if d == 0:
                    Y += _from_quad_3d(A, HG, HB, HB)
                elif d == 1:
                    Y += _from_quad_3d(A, HB, HG, HB)
                else:
                    Y += _from_quad_3d(A, HB, HB, HG)
            out_loc[c, z, :] = Y.ravel()


@numba.njit(parallel=True, fastmath=True, cache=True)
def force_transpose_hex_kernel(vec_h1, h1_dofs, ndofs, LQ, HB, HG, S, out_loc):
    nzones = h1_dofs.shape[0]
    nH = HB.shape[0]
    nq = LQ.shape[1]
    nqp = nq * nq * nq
    for z in numba.prange(nzones):
        QQ = np.zeros((nq, nq, nq))
        for c in range(3):
            V = _gather_local(vec_h1, h1_dofs, z, c * ndofs).reshape(nH, nH, nH)
            G0 = _to_quad_3d(V, HG, HB, HB)
            G1 = _to_quad_3d(V, HB, HG, HB)
            G2 = _to_quad_3d(V, HB, HB, HG)
            for kz in range(nq):
                for ky in range(nq):
                    for kx in range(nq):
                        q = z * nqp + (kz * nq + ky) * nq + kx
                        QQ[kz, ky, kx] += (S[q, c, 0] * G0[kz, ky, kx]
                                           + S[q, c, 1] * G1[kz, ky, kx]
                                           + S[q, c, 2] * G2[kz, ky, kx])
        out_loc[0, z, :] = _from_quad_3d(QQ, LQ, LQ, LQ).ravel()


# -------------------------------------------------------------------------
# mass
# -------------------------------------------------------------------------
@numba.njit(parallel=True, fastmath=True, cache=True)
def mass_quad_kernel(x, dofs, ndofs, B, coeff, out_loc):
    vdim, nzones = out_loc.shape[0], dofs.shape[0]
    n = B.shape[0]
    nq = B.shape[1]
    nqp = nq * nq
    for z in numba.prange(nzones):
        for c in range(vdim):
            X = _gather_local(x, dofs, z, c * ndofs).reshape(n, n)
            QQ = _to_quad_2d(X, B, B)
            for ky in range(nq):
                for kx in range(nq):
                    QQ[ky, kx] *= coeff[z * nqp + ky * nq + kx]
            out_loc[c, z, :] = _from_quad_2d(QQ, B, B).ravel()


@numba.njit(parallel=True, fastmath=True, cache=True)
def mass_hex_kernel(x, dofs, ndofs, B, coeff, out_loc):
    vdim, nzones = out_loc.shape[0], dofs.shape[0]
    n = B.shape[0]
    nq = B.shape[1]
    nqp = nq * nq * nq
    for z in numba.prange(nzones):
        for c in range(vdim):
            X = _gather_local(x, dofs, z, c * ndofs).reshape(n, n, n)
            QQ = _to_quad_3d(X, B, B, B)
            for kz in range(nq):
                for ky in range(nq):
                    for kx in range(nq):
                        QQ[kz, ky, kx] *= coeff[z * nqp + (kz * nq + ky) * nq + kx]
            out_loc[c, z, :] = _from_quad_3d(QQ, B, B, B).ravel()


# -------------------------------------------------------------------------
# reductions
# -------------------------------------------------------------------------
@numba.njit(parallel=True, cache=True)
def gather_kernel(loc, offsets, entries, out):
    """
    out[c*ndofs + d] = sum of loc[c, e] over the local entries e of dof d.
    loc is (ncomp, nzones*nloc); offsets/entries is the CSR dof -> entry map.
    """
    ncomp = loc.shape[0]
    ndofs = offsets.shape[0] - 1
    for d in numba.prange(ndofs):
        for c in range(ncomp):
            s = 0.0
            for k in range(offsets[d], offsets[d + 1]):
                s += loc[c, entries[k]]
            out[c * ndofs + d] = s


@numba.njit(parallel=True, cache=True)
def copy_essential_kernel(x, ess, y):
    for i in numba.prange(ess.shape[0]):
        y[ess[i]] = x[ess[i]]


@numba.njit(parallel=True, cache=True)
def zero_essential_kernel(x, ess):
    for i in numba.prange(ess.shape[0]):
        x[ess[i]] = 0.0


FORCE_KERNELS = {
    2: (force_quad_kernel, force_transpose_quad_kernel),
    3: (force_hex_kernel, force_transpose_hex_kernel),
}

MASS_KERNELS = {
    2: mass_quad_kernel,
    3: mass_hex_kernel,
}
