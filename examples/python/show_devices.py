#!/usr/bin/env python3
"""
List the OpenCL devices opencl_mm can see.
"""
import opencl_mm as mm

if __name__ == "__main__":
    print("🔍 opencl_mm Device Configuration")
    print("=" * 50)
    mm.print_device_info()
