"""Tests for host utilities, element types and configuration."""

import numpy as np
import pytest

import opencl_mm as mm
from opencl_mm import config, core


def test_generate_matrix_range_and_dtype():
    A = mm.generate_matrix(50, 40, 0, 100, dtype=np.int32, seed=1)
    assert A.shape == (50, 40)
    assert A.dtype == np.int32
    assert A.min() >= 0 and A.max() < 100

    F = mm.generate_matrix(10, 10, -1.0, 1.0, dtype=np.float32, seed=1)
    assert F.dtype == np.float32
    assert F.min() >= -1.0 and F.max() < 1.0


def test_generate_matrix_seed():
    a = mm.generate_matrix(8, 8, 0, 1000, seed=7)
    b = mm.generate_matrix(8, 8, 0, 1000, seed=7)
    assert np.array_equal(a, b)


def test_generate_matrix_rejects_complex():
    with pytest.raises(TypeError):
        mm.generate_matrix(2, 2, 0, 1, dtype=np.complex64)


def test_reference_matmul():
    A = np.array([[1, 2], [3, 4]], dtype=np.int32)
    B = np.array([[5, 6], [7, 8]], dtype=np.int32)
    C = mm.reference_matmul(A, B)
    assert C.dtype == np.int32
    assert C.tolist() == [[19, 22], [43, 50]]


def test_reference_matmul_wraps_like_kernels():
    A = np.full((1, 2), 100, dtype=np.uint8)
    B = np.full((2, 1), 2, dtype=np.uint8)
    assert mm.reference_matmul(A, B)[0, 0] == (400 % 256)


def test_reference_matmul_shape_errors():
    with pytest.raises(ValueError):
        mm.reference_matmul(np.zeros((2, 3)), np.zeros((2, 3)))
    with pytest.raises(ValueError):
        mm.reference_matmul(np.zeros(3), np.zeros((3, 1)))
    with pytest.raises(TypeError):
        mm.reference_matmul(np.zeros((2, 2), np.int32), np.zeros((2, 2), np.int64))


def test_compare_matrices():
    A = np.ones((3, 3))
    report = mm.compare_matrices(A, A + 1e-6)
    assert report['matrices_close']
    assert not report['exact_match']

    report = mm.compare_matrices(A, A + 1.0)
    assert not report['matrices_close']
    assert report['max_absolute_error'] == pytest.approx(1.0)

    assert mm.compare_matrices(A, np.ones((2, 3)))['shapes_match'] is False


def test_format_bytes():
    assert core.format_bytes(512) == "512.0 B"
    assert core.format_bytes(40000) == "39.1 KB"
    assert core.format_bytes(3 * 1024 ** 3) == "3.0 GB"


def test_estimate_memory_usage():
    usage = core.estimate_memory_usage([(100, 100), (100, 100)], np.int32)
    assert usage['elements'] == 20000
    assert usage['bytes'] == 80000
    assert usage['human_readable'] == "78.1 KB"
    assert set(usage) == {'elements', 'bytes', 'human_readable'}


def test_calculate_gflops():
    assert core.calculate_gflops(100, 100, 100, 1e-3) == pytest.approx(2.0)
    assert core.calculate_gflops(4, 4, 4, 0) == float('inf')


def test_timer():
    with core.Timer() as timer:
        sum(range(1000))
    assert timer.elapsed >= 0
    with pytest.raises(RuntimeError):
        core.Timer().elapsed


def test_element_types():
    assert mm.ElementType.of(np.int32) is mm.ElementType.I32
    assert mm.ElementType.of("float64").kernel_name == "mul_f64"
    assert mm.ElementType.U8.kernel_name == "mul_u8"
    assert mm.ElementType.F32.is_float
    assert not mm.ElementType.I64.is_float
    assert len(mm.supported_dtypes()) == 10


@pytest.mark.parametrize("dtype", [np.bool_, np.complex128, np.float16])
def test_element_type_rejects_unsupported(dtype):
    with pytest.raises(mm.KernelResolutionError):
        mm.ElementType.of(dtype)


def test_bundled_kernel_source_defines_every_type(monkeypatch):
    monkeypatch.delenv(config.KERNEL_SOURCE_ENV, raising=False)
    source = config.load_kernel_source()
    for member in mm.ElementType:
        assert f"DEFINE_MUL({member.type_name}," in source


def test_kernel_source_path_precedence(tmp_path, monkeypatch):
    monkeypatch.delenv(config.KERNEL_SOURCE_ENV, raising=False)
    assert config.kernel_source_path() == config.DEFAULT_KERNEL_SOURCE

    monkeypatch.setenv(config.KERNEL_SOURCE_ENV, str(tmp_path / "env.cl"))
    assert config.kernel_source_path() == tmp_path / "env.cl"
    assert config.kernel_source_path(tmp_path / "arg.cl") == tmp_path / "arg.cl"


def test_error_carries_call():
    error = mm.DispatchError("rejected", call="clEnqueueNDRangeKernel")
    assert str(error) == "clEnqueueNDRangeKernel: rejected"
    assert isinstance(error, mm.DeviceError)
    assert isinstance(mm.DimensionError("bad"), ValueError)


def test_list_devices_shape():
    for info in mm.list_devices():
        assert {'name', 'platform', 'fp64', 'max_work_group_size'} <= set(info)
