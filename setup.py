from setuptools import setup, find_packages

setup(
    name='assist-forest',
    version='1.0',
    packages=find_packages(exclude=['tests', 'experiments']),
    py_modules=[
        'bootstrap',
        'errors',
        'forest_trainer',
        'importance',
        'metrics',
        'model_artifact',
        'random_source',
        'split_search',
        'standardizer',
        'tree_builder',
        'tuner',
    ],
    description='Random-forest regression engine for player stat projections',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    install_requires=[
        'numpy',
        'pandas',
        'joblib',
        'loguru',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
