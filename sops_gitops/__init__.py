"""
sops-gitops imports GPG keys and rotates the keys in a .sops.yaml file.

Keys are passed base64 encoded. The gpg command is used to import keys and to
read their fingerprints, and the sops command is used to encrypt secrets.

Import a private key and add rules for public keys to .sops.yaml:

\b
    $ sops-gitops run --private-key "$(base64 -w0 private.asc)" \\
        --public-keys "$(base64 -w0 alice.asc),$(base64 -w0 bob.asc)"

Show the fingerprint of a key file:

\b
    $ sops-gitops fingerprint --file alice.asc

Re-encrypt every sops encrypted YAML file under the current rules:

\b
    $ sops-gitops update

Create a new secret file encrypted with the current rules:

\b
    $ sops-gitops create "secrets/app.yaml"
"""

__version__ = '0.1.0'
