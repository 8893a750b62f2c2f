import numpy as np

# Lanes per group (threads per block)
GROUP_SIZE = 512

SAXPY_KERNEL_NAME = "saxpy_kernel"

SAXPY_KERNEL_CODE = r'''
extern "C" __global__
void saxpy_kernel(int N, float alpha, const float* x, const float* y, float* result) {
    int index = blockIdx.x * blockDim.x + threadIdx.x;

    if (index < N) {
        result[index] = alpha * x[index] + y[index];
    }
}
'''


def num_groups(n, group_size=GROUP_SIZE):
    if group_size <= 0:
        raise ValueError(f"group size must be positive, got {group_size}")
    return (n + group_size - 1) // group_size


def saxpy_reference(alpha, x, y):
    # float32 in, float32 out: one rounding for the multiply, one for the add
    return np.float32(alpha) * np.asarray(x, dtype=np.float32) + np.asarray(y, dtype=np.float32)


def saxpy_groups(n, alpha, x, y, result, group_size=GROUP_SIZE):
    """Run the kernel group by group on the host.

    Every group covers ``group_size`` lanes; lanes past ``n`` in the last
    group write nothing.
    """
    alpha = np.float32(alpha)
    for group in range(num_groups(n, group_size)):
        start = group * group_size
        end = min(start + group_size, n)
        result[start:end] = alpha * x[start:end] + y[start:end]
