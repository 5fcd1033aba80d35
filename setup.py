from setuptools import setup, find_packages


setup(
    name='torch_krylov',
    version='0.1.0',
    packages=find_packages(include=['torch_krylov', 'torch_krylov.*']),
    install_requires=[
        'torch>=2.0.0',
    ],
    extras_require={
        'test':['pytest','numpy','scipy'],
    }
)
