from setuptools import setup, find_packages

setup(
    name='mesh_retarget_sdk',
    version='0.1.0',
    description='Transfer skinned mesh parts between differently named character skeletons',
    packages=find_packages(include=['mesh_retarget_sdk', 'mesh_retarget_sdk.*']),
    package_data={
        'mesh_retarget_sdk': ['configs/*.json'],
    },
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'scipy>=1.14',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
