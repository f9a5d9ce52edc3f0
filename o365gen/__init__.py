"""o365gen -- scaffolding for Office 365 web applications.

Resolves the generator options, merges the required npm and bower packages
into existing manifests, renders the AngularJS + ADAL application skeleton
and optionally runs the package manager.
"""

__version__ = "0.1.0"
