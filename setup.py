from setuptools import setup, find_packages

setup(
    name="opencl-mm",
    version="1.0.0",
    description="Scoped OpenCL sessions for dense matrix multiplication",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    package_data={"opencl_mm": ["kernels/*.cl"]},
    install_requires=["numpy>=1.19.0", "pyopencl>=2022.1"],
    extras_require={
        "test": ["pytest>=6.0", "pytest-cov", "pyopencl[pocl]>=2022.1"],
    },
    python_requires=">=3.8",
)
